"""검색 API 서비스 패키지(Search API service package)."""
