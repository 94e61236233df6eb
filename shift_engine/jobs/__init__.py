"""배치 작업 패키지 — 스케줄러(cron 등)에서 실행하는 작업.

Batch job package — Entry points run by an external scheduler.
"""
