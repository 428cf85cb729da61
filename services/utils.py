# services/utils.py

import math
from decimal import Decimal, ROUND_HALF_UP
from flask_mail import Message
from db.extensions import mail
from flask import current_app


def send_email(subject, recipients, body, html=None):
    msg = Message(subject, recipients=recipients)
    msg.body = body
    if html:
        msg.html = html
    current_app.logger.debug(f"msg: {msg.subject} -> {recipients}")
    try:
        mail.send(msg)
        current_app.logger.info("Mail Sent Successfully")
        return True
    except Exception as e:
        current_app.logger.error(f"Failed to send email: {e}")
        return False


def round_amount(value):
    """Round to the nearest whole currency unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def parse_rate(rate):
    """A share of the order total as a fraction: 0.10 is ten percent."""
    rate = Decimal(str(rate))
    if not Decimal(0) <= rate <= Decimal(1):
        raise ValueError(f"Rate {rate} is not a fraction between 0 and 1")
    return rate


def minutes_between(start, end):
    """Whole minutes elapsed, floored; never negative."""
    if start is None or end is None:
        return 0
    return max(0, math.floor((end - start).total_seconds() / 60))
