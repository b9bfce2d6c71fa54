"""Infrastructure: persistence, language model adapter and prompt rendering."""
