"""검색 API 애플리케이션(Search API application)."""
