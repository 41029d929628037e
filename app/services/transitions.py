from fastapi import HTTPException, status

# action -> (allowed source statuses, target status)
ORDER_TRANSITIONS: dict[str, tuple[set[str], str]] = {
    "accept": ({"pending_approval"}, "pending_payment"),
    "decline": ({"pending_approval"}, "declined"),
    "approve_payment": ({"pending_payment"}, "paid"),
    "finish": ({"paid"}, "pending_completion"),
    "complete": ({"paid", "pending_completion"}, "completed"),
    "dispute": ({"paid", "pending_completion"}, "disputed"),
    "resolve": ({"disputed"}, "resolved"),
}

AD_TRANSITIONS: dict[str, tuple[set[str], str]] = {
    "approve": ({"pending_review"}, "pending_payment"),
    "reject": ({"pending_review"}, "rejected"),
    "verify_payment": ({"pending_payment"}, "active"),
    "submit_payment": ({"pending_payment"}, "payment_review"),
    "confirm_payment": ({"payment_review"}, "active"),
    "reject_payment": ({"payment_review"}, "pending_payment"),
}


def next_status(transitions: dict[str, tuple[set[str], str]], action: str, current: str) -> str:
    """Return the target status or raise 400 when `action` is not allowed from `current`."""
    sources, target = transitions[action]
    if current not in sources:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action.replace('_', ' ')} when status is '{current}'",
        )
    return target
