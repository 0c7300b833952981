"""Video Notes Engine: analysis, multi-format notes and grounded Q&A for videos."""
