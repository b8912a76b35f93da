"""Rule data shipped with the package and its loader."""
