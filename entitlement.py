from errors import EntitlementError

# Premium features gated by the subscription flag
FEATURE_PHOTO = "Item photos"
FEATURE_SIGNATURE = "Digital signature"


def is_entitled(user):
    return bool(user is not None and user.is_pro)


def require_entitlement(user, feature):
    if not is_entitled(user):
        raise EntitlementError(f"{feature} available on the PRO plan")
