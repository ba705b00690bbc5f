"""Receipt data model: extraction records, pages, expenses and duplicate groups."""
