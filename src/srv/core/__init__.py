"""Request path resolution and listing rendering."""
