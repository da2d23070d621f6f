"""PureTrans command line."""
