"""Contact requests submitted through the public contact form."""
