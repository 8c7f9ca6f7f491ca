"""
Payments app package.

Payment requests sent to patients, payments taken through Stripe Connect
destination charges, refunds, and the Stripe webhook endpoint.  See
payments/views.py for API details and payments/services.py for the
state changes behind them.
"""
