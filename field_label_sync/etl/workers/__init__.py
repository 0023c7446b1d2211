"""
Workers package for background queue processing.

Workers consume root sync jobs and per-context refresh units from RabbitMQ.
"""
