import secrets

# Uppercase letters and digits without the look-alikes I, O, 0 and 1
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    if length < 0:
        raise ValueError("length must not be negative")
    return ''.join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))
