"""서비스 패키지 — 템플릿 전개, 배정, 시프트 관리 로직.

Service package — Template expansion, assignment and shift management.
Services open their own transactions and publish events after commit.
"""
