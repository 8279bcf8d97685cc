"""
GSTIN and state code utilities
"""
from typing import Optional, List, Dict
import re


GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")

STATE_CODES: Dict[str, str] = {
    "01": "Jammu and Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana", "07": "Delhi",
    "08": "Rajasthan", "09": "Uttar Pradesh", "10": "Bihar", "11": "Sikkim",
    "12": "Arunachal Pradesh", "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam", "19": "West Bengal",
    "20": "Jharkhand", "21": "Odisha", "22": "Chhattisgarh", "23": "Madhya Pradesh",
    "24": "Gujarat", "25": "Daman and Diu", "26": "Dadra and Nagar Haveli",
    "27": "Maharashtra", "29": "Karnataka", "30": "Goa", "31": "Lakshadweep",
    "32": "Kerala", "33": "Tamil Nadu", "34": "Puducherry",
    "35": "Andaman and Nicobar Islands", "36": "Telangana", "37": "Andhra Pradesh",
    "38": "Ladakh", "97": "Other Territory",
}


def validate_gstin(gstin: Optional[str]) -> bool:
    if not gstin:
        return False
    return bool(GSTIN_PATTERN.match(gstin.strip().upper()))


def state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """First two characters of a valid GSTIN are the registering state's code"""
    if not validate_gstin(gstin):
        return None
    return gstin.strip()[:2]


def format_gstin(gstin: Optional[str]) -> str:
    """Group a GSTIN for display: 27 AABCT 1234 F 1Z 5"""
    if not gstin:
        return ""
    cleaned = re.sub(r"\s", "", gstin)
    if len(cleaned) != 15:
        return gstin
    return f"{cleaned[:2]} {cleaned[2:7]} {cleaned[7:11]} {cleaned[11]} {cleaned[12:14]} {cleaned[14]}"


def get_state_name(state_code: str) -> str:
    return STATE_CODES.get(state_code, state_code)


def get_place_of_supply(state_code: str) -> str:
    return f"{state_code}-{get_state_name(state_code)}"


def get_all_states() -> List[Dict[str, str]]:
    return [{"code": code, "name": name} for code, name in STATE_CODES.items()]
