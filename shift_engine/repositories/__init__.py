"""레포지토리 패키지 — 시프트 엔진의 쿼리 계층.

Repository package — Query layer of the shift engine.
Repositories own every SQL statement, including the conditional UPDATEs
that move ``filled_count``; services never write those columns directly.
"""
