"""Cross-cutting pieces shared by the listener, classifier and store."""
