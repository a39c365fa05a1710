"""Story generation — completion parsing, fallbacks, illustration and assembly."""
