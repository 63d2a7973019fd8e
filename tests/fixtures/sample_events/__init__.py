"""Small event library used as an audit target by the test suite."""
