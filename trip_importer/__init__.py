"""Import pipeline turning shared travel content into saved trip places."""
