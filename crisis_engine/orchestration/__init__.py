"""
Engine orchestration

- ports: store / LLM / fan-out / clock interfaces
- store: SQLAlchemy implementation of the store port
- publisher: gatekeeper claim and the shared publish pipeline
- scheduler: session poller (time triggers, escalation cadence)
- evaluator: decision-trigger evaluation
- runtime: production wiring
"""
