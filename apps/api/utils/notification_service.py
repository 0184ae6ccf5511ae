"""SMS notification service using Twilio"""
import os
import logging
from typing import Optional, Tuple
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self):
        self.account_sid = os.getenv("TWILIO_ACCOUNT_SID")
        self.auth_token = os.getenv("TWILIO_AUTH_TOKEN")
        self.sms_from = os.getenv("TWILIO_SMS_FROM")  # e.g., +1234567890

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
        else:
            self.client = None
            logger.info("Twilio credentials not configured. Notifications will be simulated.")

    def _is_configured(self) -> bool:
        """Check if Twilio is properly configured"""
        return self.client is not None and bool(self.sms_from)

    def send_sms(self, to_phone: Optional[str], message: str) -> Tuple[bool, Optional[str]]:
        """
        Send SMS via Twilio

        Args:
            to_phone: Phone number in E.164 format (e.g., +919876543210)
            message: Message content

        Returns:
            (success: bool, message_sid or error: str)
        """
        if not to_phone:
            logger.warning("SMS skipped: no phone number on file")
            return False, "missing_phone"

        if not self._is_configured():
            logger.info(f"[SIMULATED SMS] To: {to_phone}, Message: {message}")
            return True, "simulated_message_sid"

        try:
            message_obj = self.client.messages.create(
                from_=self.sms_from,
                body=message,
                to=to_phone
            )
            return True, message_obj.sid
        except TwilioRestException as e:
            logger.error(f"Twilio error sending SMS to {to_phone}: {e}")
            return False, f"Twilio error: {e}"

    def send_appointment_reminder(
        self,
        to_phone: Optional[str],
        patient_name: str,
        doctor_name: str,
        appointment_date: str,
        appointment_time: str
    ) -> Tuple[bool, Optional[str]]:
        """Send a reminder for an upcoming appointment"""
        message = (
            f"Hello {patient_name}, this is a reminder of your appointment with "
            f"{doctor_name} on {appointment_date} at {appointment_time}. "
            f"Please arrive up to 15 minutes early to check in."
        )
        return self.send_sms(to_phone, message)

    def send_waitlist_offer(
        self,
        to_phone: Optional[str],
        patient_name: str,
        doctor_name: str,
        preferred_date: Optional[str] = None,
        preferred_time: Optional[str] = None
    ) -> Tuple[bool, Optional[str]]:
        """Tell a waitlisted patient that an opening is available"""
        when = ""
        if preferred_date:
            when = f" on {preferred_date}"
            if preferred_time:
                when += f" at {preferred_time}"
        message = (
            f"Hello {patient_name}, an appointment with {doctor_name}{when} has opened up. "
            f"Please contact the clinic to confirm your booking."
        )
        return self.send_sms(to_phone, message)


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
