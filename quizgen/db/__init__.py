"""
Async SQLAlchemy persistence for the question bank and exam history.
"""
