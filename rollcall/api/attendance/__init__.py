"""Resources for reading and correcting attendance facts."""
