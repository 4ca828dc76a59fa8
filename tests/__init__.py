"""
Centralized test suite for the AgriMarket backend.

Test Organization:
- integration/ - service and API tests against the database
- test_payment_gateway.py - Paystack adapter tests with HTTP mocked
"""
