"""Resources for triggering and scheduling attendance imports."""
