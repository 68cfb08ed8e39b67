"""
User-friendly status messages for order and item badges
"""

def get_status_message(status: str) -> dict:
    """
    Convert an order/item status to the label shown to customers
    Returns dict with message and progress info
    """

    if status == "cancelled":
        return {
            "label": "Cancelled",
            "message": "This order was cancelled.",
            "progress_percent": 0,
            "is_complete": True,
            "is_error": True
        }

    if status == "completed":
        return {
            "label": "Completed",
            "message": "Your edited photos are ready!",
            "progress_percent": 100,
            "is_complete": True,
            "is_error": False
        }

    status_messages = {
        "pending": {
            "label": "Pending",
            "message": "Your order is waiting for payment or review...",
            "progress_percent": 5,
            "is_complete": False,
            "is_error": False
        },
        "processing": {
            "label": "Processing",
            "message": "Payment received. Your order is being prepared...",
            "progress_percent": 20,
            "is_complete": False,
            "is_error": False
        },
        "assigned": {
            "label": "Assigned",
            "message": "An editor has been assigned to your photos...",
            "progress_percent": 35,
            "is_complete": False,
            "is_error": False
        },
        "in_progress": {
            "label": "In Progress",
            "message": "Your editor is working on your photos...",
            "progress_percent": 60,
            "is_complete": False,
            "is_error": False
        },
        "revision": {
            "label": "In Revision",
            "message": "Your revision request is being processed. You'll see the updated images here once complete.",
            "progress_percent": 80,
            "is_complete": False,
            "is_error": False
        }
    }

    return status_messages.get(status, {
        "label": (status or "unknown").replace("_", " ").title(),
        "message": "Processing your order...",
        "progress_percent": 50,
        "is_complete": False,
        "is_error": False
    })
