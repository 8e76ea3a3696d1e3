"""core/ -- Configuration and error types shared by every Keyward package."""
