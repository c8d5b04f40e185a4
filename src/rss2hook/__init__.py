"""Poll RSS/Atom feeds and POST new items to per-feed web-hooks."""
