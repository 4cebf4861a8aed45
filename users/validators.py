import re
from django.core.exceptions import ValidationError
from django.core.validators import validate_email

RIB_RE = re.compile(r'^\d{20}$')
TN_PHONE_RE = re.compile(r'^\+216\d{8}$')
TIN_RE = re.compile(r'^[A-Z0-9\-]{5,12}$')


def validate_rib(rib):
    """
    Validate a Tunisian RIB (relevé d'identité bancaire).

    Returns:
        tuple: (is_valid: bool, error_message: str or None)
    """
    if not rib or not RIB_RE.match(rib):
        return False, "RIB must be 20 digits"
    return True, None


def validate_holder_name(name):
    """Letters (any script), spaces, apostrophes and hyphens; 2 to 80 characters"""
    if not name or not 2 <= len(name) <= 80:
        return False, "Invalid holderName"
    if not all(ch.isalpha() or ch in " '-" for ch in name):
        return False, "Invalid holderName"
    return True, None


def validate_tunisian_phone(phone_number):
    if not phone_number or not TN_PHONE_RE.match(phone_number):
        return False, "Invalid phoneNumber (+216XXXXXXXX)"
    return True, None


def validate_email_address(email):
    try:
        validate_email(email or '')
    except ValidationError:
        return False, "Invalid email"
    return True, None


def validate_tax_identification_number(tin):
    """Optional; empty values are accepted"""
    if tin and not TIN_RE.match(tin):
        return False, "Invalid taxIdentificationNumber"
    return True, None


BANK_ACCOUNT_VALIDATORS = {
    'rib': validate_rib,
    'holder_name': validate_holder_name,
    'phone_number': validate_tunisian_phone,
    'email': validate_email_address,
    'tax_identification_number': validate_tax_identification_number,
}


def validate_bank_account_fields(data, partial=False):
    """
    Validate bank account input.

    Args:
        data (dict): field name -> value, snake_case
        partial (bool): only validate fields that are present

    Raises:
        ValidationError: with the first failing field's message
    """
    if not partial and not data.get('bank_code'):
        raise ValidationError("bankCode required")

    for field, validator in BANK_ACCOUNT_VALIDATORS.items():
        if partial and data.get(field) in (None, ''):
            continue
        is_valid, error_message = validator(data.get(field))
        if not is_valid:
            raise ValidationError(error_message)
