
# ------------------------------ URLS ------------------------------
PORTAL_URL = "https://www.maxjeune-tgvinoui.sncf/sncf-connect"
RESERVATIONS_URL = "https://www.maxjeune-tgvinoui.sncf/sncf-connect/mes-voyages"

# Substrings of the current URL that mean the portal bounced us to a login page
LOGIN_URL_MARKERS = ["login", "connexion"]

# ------------------------------ CONSENT SELECTORS ------------------------------
# Every list below is ranked: the first selector that matches wins.

COOKIE_CONSENT_SELECTORS = [
    'button:has-text("Accepter & Fermer")',
    'button:has-text("Accepter")',
    'text="Accepter & Fermer"',
    'text="Continuer sans accepter"',
    '[data-testid="accept-cookies"]',
    'button:has-text("Tout accepter")',
]

# ------------------------------ LOGIN SELECTORS ------------------------------

LOGGED_IN_SELECTORS = [
    'text="Mes voyages"',
    'text="Déconnexion"',
    '[data-testid="user-menu"]',
    '.user-profile',
    'text="Mes réservations à venir"',
]

LOGIN_BUTTON_SELECTORS = [
    'text="Mon espace MAX"',
    'text="Me connecter"',
    'text="Connexion"',
    '[data-testid="login-button"]',
    'button:has-text("Connexion")',
    'a:has-text("Mon espace")',
]

EMAIL_FORM_SELECTOR = 'input[type="email"], input[name="email"], input[id="email"]'

EMAIL_SELECTORS = [
    'input[type="email"]',
    'input[name="email"]',
    'input[id="email"]',
    'input[autocomplete="email"]',
    'input[placeholder*="mail"]',
]

PASSWORD_SELECTORS = [
    'input[type="password"]',
    'input[name="password"]',
    'input[id="password"]',
]

SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'button:has-text("Connexion")',
    'button:has-text("Se connecter")',
    'input[type="submit"]',
]

# ------------------------------ TWO-FACTOR SELECTORS ------------------------------

TWO_FACTOR_INDICATORS = [
    'text="code de vérification"',
    'text="verification code"',
    'text="code à 6 chiffres"',
    'input[maxlength="6"]',
    'input[autocomplete="one-time-code"]',
    'text="envoyé par e-mail"',
    'text="sent to your email"',
]

# One input per digit, tried before the combined field
DIGIT_FIELD_SELECTORS = [
    'input[maxlength="1"]',
    'input[data-index]',
    '.otp-input input',
    '.code-input input',
    '.verification-code input',
]

CODE_FIELD_SELECTORS = [
    'input[maxlength="6"]',
    'input[autocomplete="one-time-code"]',
    'input[type="tel"]',
    'input[inputmode="numeric"]',
    'input[name="code"]',
]

TWO_FACTOR_SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'button:has-text("Valider")',
    'button:has-text("Confirmer")',
    'button:has-text("Vérifier")',
]

CODE_LENGTH = 6

# ------------------------------ RESERVATION SELECTORS ------------------------------

TRIPS_TAB_SELECTORS = [
    'text="Mes voyages"',
    'text="Mes réservations"',
    'text="Voyages à venir"',
    '[data-testid="trips-tab"]',
    'a:has-text("voyages")',
]

RESERVATION_CARD_SELECTORS = [
    '.reservation-card',
    '.trip-card',
    '.voyage-item',
    '[data-testid="reservation-item"]',
    '.upcoming-trip',
    'article[class*="voyage"]',
    'div[class*="reservation"]',
]

# Primary anchor of the button-anchored strategy; matches disabled buttons too
CONFIRM_BUTTON_SELECTOR = 'button:has-text("Confirmer")'

CONFIRM_BUTTON_SELECTORS = [
    CONFIRM_BUTTON_SELECTOR,
    'a:has-text("Confirmer")',
    '[data-testid*="confirm"]',
    '.confirm-button',
    'button:has-text("Confirm")',
]

CONFIRM_MODAL_SELECTOR = 'button:has-text("Confirmer la réservation")'

# ------------------------------ TEXT PATTERNS ------------------------------

NEEDS_CONFIRMATION_PATTERN = r"confirmer|à confirmer|en attente|pending"

ROUTE_PATTERN = r"([A-ZÀ-Ü][a-zà-ü\- ]+?)\s*(?:→|->|>|vers)\s*([A-ZÀ-Ü][a-zà-ü\- ]+)"
TIME_PATTERN = r"(\d{1,2})[h:](\d{2})"
TIME_MARKER_PATTERN = r"^\d{1,2}[h:]\d{2}$"
# Station names are upper-case and sit on the same or the next line as their time
STATION_AFTER_TIME_PATTERN = r"\d{1,2}[h:]\d{2}[ \t]*\n?[ \t]*([A-ZÀÂÄÉÈÊËÏÎÔÙÛÜÇ][A-ZÀÂÄÉÈÊËÏÎÔÙÛÜÇ \-']+)"
TRAIN_NUMBER_PATTERN = r"(?:TGV|INOUI|INTERCITÉS?)\s*(?:INOUI\s*)?N°\s*(\d+)"
CARD_TRAIN_NUMBER_PATTERN = r"(?:train|TGV|INOUI)\s*(?:n°|#)?\s*(\d+)"
LONG_DATE_PATTERN = (
    r"(?:lundi|mardi|mercredi|jeudi|vendredi|samedi|dimanche)\s+(\d{1,2})\s+"
    r"(janvier|février|mars|avril|mai|juin|juillet|août|septembre|octobre|novembre|décembre)\s+(\d{4})"
)
SHORT_DATE_PATTERN = (
    r"(\d{1,2})\s*(janvier|février|mars|avril|mai|juin|juillet|août|septembre|octobre|novembre|décembre|"
    r"jan|fév|mar|avr|juil|aoû|sep|oct|nov|déc)\.?\s*(\d{4})?"
)

MONTHS = {
    "janvier": 1, "jan": 1,
    "février": 2, "fév": 2,
    "mars": 3, "mar": 3,
    "avril": 4, "avr": 4,
    "mai": 5,
    "juin": 6,
    "juillet": 7, "juil": 7,
    "août": 8, "aoû": 8,
    "septembre": 9, "sep": 9,
    "octobre": 10, "oct": 10,
    "novembre": 11, "nov": 11,
    "décembre": 12, "déc": 12,
}

# ------------------------------ END OF FILE ------------------------------
