"""
Product constants - limits, rewards and cadences
"""

# Habit caps per tier
FREE_HABITS_LIMIT = 3
PREMIUM_HABITS_LIMIT = 100

# History depth shown per tier (days)
FREE_HISTORY_DAYS = 7
PREMIUM_HISTORY_DAYS = 365

# Trailing window used for the cross-habit streak
OVERALL_STREAK_WINDOW_DAYS = 365

# Referral program
REFERRAL_STAGE1_BONUS_DAYS = 2
REFERRAL_STAGE2_BONUS_DAYS = 3
REFERRAL_UNLOCK_STREAK = 7
REFERRAL_STAGE2_STREAK = 7
REFERRAL_BONUS_LIMIT = 5
REFERRAL_DISCOUNT_PER_REFERRAL = 25
MAX_REFERRAL_DISCOUNT = 50

# Subscription
SUBSCRIPTION_DAYS = 30
MAX_GRANT_ATTEMPTS = 5

# Ads
AD_FREQUENCY = 5
AD_CACHE_TTL_SECONDS = 300

# Chat sessions
SESSION_TIMEOUT_MINUTES = 30

# Broadcasts
BROADCAST_BATCH_SIZE = 25
BROADCAST_SEND_DELAY_SECONDS = 0.04

# Scheduler
SESSION_CLEANUP_INTERVAL_SECONDS = 60
BROADCAST_TICK_SECONDS = 5

# External HTTP calls
HTTP_TIMEOUT_SECONDS = 30
