# Redis keys

def k_settle_lock(round_id: int) -> str:
    return f"huay:settle:lock:{round_id}"
