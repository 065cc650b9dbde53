"""Exception hierarchy for the challenge engine.

Provider errors are transient and isolated per user. Configuration errors
surface to whoever triggered the operation. Invariant errors are fatal and
never corrected silently.
"""

from __future__ import annotations


class RacError(Exception):
    """Base class for all engine errors."""


# --- Transient provider errors ---


class ProviderError(RacError):
    """The achievement provider could not answer this call."""


class ProviderTimeoutError(ProviderError):
    """The provider call exceeded its time budget."""


class ProviderRateLimitError(ProviderError):
    """The provider rejected the call with a rate limit."""


class MalformedPayloadError(ProviderError):
    """The provider answered with a payload we cannot parse."""


# --- Configuration errors ---


class ConfigurationError(RacError):
    """Challenge or scoring configuration is missing or invalid."""


class ChallengeNotConfiguredError(ConfigurationError):
    """No challenge exists for the requested period."""


class InvalidTierThresholdsError(ConfigurationError):
    """Tier boundaries or the points scheme are unusable."""


class ChallengeLockedError(ConfigurationError):
    """Scoring has started; only the achievement total may still change."""


# --- Invariant violations ---


class AwardInvariantError(RacError):
    """More than one award exists for a (user, game, period) key."""


# --- Everything else ---


class DeliveryError(RacError):
    """The notifier failed to deliver an announcement."""


class CycleInFlightError(RacError):
    """A poll cycle is already running."""


class AwardNotFoundError(RacError):
    """The award does not exist or is not a manual award."""
