"""
Clinics app package.

Holds the clinic profile, its Stripe Connect onboarding state and the
platform-wide settings (platform fee, notification webhook URLs).
"""
