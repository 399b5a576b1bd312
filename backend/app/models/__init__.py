from app.models.payment import PaymentAttempt

__all__ = ["PaymentAttempt"]
