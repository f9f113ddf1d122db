"""Outbound message templates, in French and English.

Everything the bot sends verbatim lives here; only the missing-criteria
prompt is generated by the NLU. Templates are keyed by language and fall
back to French.
"""

from __future__ import annotations

from typing import Optional, Sequence

from listings.schema import Offer, PropertyOffer, VehicleOffer
from offerbot.contact import ContactField
from offerbot.models.session import ContactInfo, OfferSnapshot, RequestKind

CURRENCY = "FCFA"

# Sent when a turn fails; deliberately not localized
APOLOGY = "Sorry, I'm having trouble responding right now. Please try again later."


def _pick(templates: dict[str, str], language: str) -> str:
    return templates.get(language, templates["fr"])


def format_price(amount: Optional[float], language: str = "fr") -> str:
    """``50000`` -> ``"50 000"`` (fr) or ``"50,000"`` (en)."""
    if amount is None:
        return "-"
    text = f"{int(round(amount)):,}"
    return text.replace(",", " ") if language != "en" else text


def product_link(base_url: str, offer_id: int) -> str:
    return f"{base_url.rstrip('/')}/fr/produit/view/{offer_id}"


def media_url(base_url: str, image: Optional[str]) -> Optional[str]:
    """Public URL of an uploaded offer image, or None for no image."""
    if not image:
        return None
    if image.startswith(("http://", "https://")):
        return image
    return f"{base_url.rstrip('/')}/content/cache/gallery/uploads/produit/{image.lstrip('/')}"


# ── Greeting / fallbacks ─────────────────────────────────────

_GREETING = {
    "fr": (
        "🤖 *Bonjour! Je suis NimmoBot, l'assistant virtuel de Nimmo Auto.*\n\n"
        "Je suis là pour vous aider à trouver rapidement les meilleures offres "
        "de véhicules et d'immobilier. Je peux vous proposer des options "
        "personnalisées selon vos besoins.\n\n"
        "*Comment puis-je vous aider aujourd'hui?*\n\n"
        "💡 Dites-moi ce que vous cherchez (véhicule ou immobilier), votre ville "
        "préférée et votre budget."
    ),
    "en": (
        "🤖 *Hello! I'm NimmoBot, the virtual assistant of Nimmo Auto.*\n\n"
        "I'm here to help you quickly find the best vehicle and real estate "
        "offers. I can suggest personalized options based on your needs.\n\n"
        "*How can I help you today?*\n\n"
        "💡 Tell me what you're looking for (vehicle or real estate), your "
        "preferred city and budget."
    ),
}

_VOICE_FAILURE = {
    "fr": (
        "Désolé, je n'ai pas pu comprendre votre message vocal. Pouvez-vous "
        "réessayer ou envoyer un message texte ?"
    ),
    "en": (
        "Sorry, I couldn't understand your voice message. Could you try again "
        "or send a text message?"
    ),
}


def greeting(language: str) -> str:
    return _pick(_GREETING, language)


def voice_failure(language: str) -> str:
    return _pick(_VOICE_FAILURE, language)


# ── Contact sub-dialogue ─────────────────────────────────────

_QUESTIONS = {
    "fr": {
        ContactField.NAME: "Merci ! Maintenant, j'ai besoin de votre nom et prénom :",
        ContactField.CURRENT_CITY: "Parfait ! Maintenant, dans quelle ville habitez-vous actuellement ?",
        ContactField.EMAIL: "Excellent ! Maintenant, j'ai besoin de votre adresse email :",
        ContactField.NUMBER_OF_DAYS: "Parfait ! Pour combien de jours souhaitez-vous louer ?",
        ContactField.START_DATE: (
            "Très bien ! À partir de quelle date souhaitez-vous commencer la "
            "location ? (format: JJ/MM/AAAA)"
        ),
    },
    "en": {
        ContactField.NAME: "Thank you! Now I need your first and last name:",
        ContactField.CURRENT_CITY: "Perfect! Now, in which city do you currently live?",
        ContactField.EMAIL: "Excellent! Now I need your email address:",
        ContactField.NUMBER_OF_DAYS: "Perfect! For how many days would you like to rent?",
        ContactField.START_DATE: (
            "Very good! From what date would you like to start the rental? "
            "(format: DD/MM/YYYY)"
        ),
    },
}


def contact_question(field: ContactField, language: str) -> str:
    return _QUESTIONS.get(language, _QUESTIONS["fr"])[field]


def selection_confirmation(
    snapshot: OfferSnapshot, phone: str, language: str,
) -> str:
    """Confirms the chosen offer; the first contact question is sent separately."""
    price = format_price(snapshot.price, language)
    if language == "en":
        return (
            f"Excellent choice! 🎉\n\n"
            f"You have selected: *{snapshot.name}*\n"
            f"💰 Price: {price} {CURRENCY}\n"
            f"📍 Location: {snapshot.town}\n\n"
            f"Your phone number ({phone}) has been automatically recorded.\n\n"
            "To finalize your request, I need some information."
        )
    return (
        f"Excellent choix ! 🎉\n\n"
        f"Vous avez sélectionné : *{snapshot.name}*\n"
        f"💰 Prix: {price} {CURRENCY}\n"
        f"📍 Lieu: {snapshot.town}\n\n"
        f"Votre numéro de téléphone ({phone}) a été automatiquement enregistré.\n\n"
        "Pour finaliser votre demande, j'ai besoin de quelques informations."
    )


def contact_summary(
    contact: ContactInfo, request_kind: Optional[RequestKind], language: str,
) -> str:
    """Closing summary once every required contact field is known."""
    en = language == "en"
    unknown = "Not specified" if en else "Non spécifié"

    def value(v) -> str:
        return str(v) if v not in (None, "") else unknown

    if en:
        lines = [
            f"• Name: {value(contact.surname)}",
            f"• First name: {value(contact.name)}",
            f"• Phone: {value(contact.phone)}",
            f"• City: {value(contact.current_city)}",
        ]
    else:
        lines = [
            f"• Nom: {value(contact.surname)}",
            f"• Prénom: {value(contact.name)}",
            f"• Téléphone: {value(contact.phone)}",
            f"• Ville: {value(contact.current_city)}",
        ]

    rental = request_kind == RequestKind.RENTAL
    if rental:
        if en:
            lines += [
                f"• Email: {value(contact.email)}",
                f"• Number of days: {value(contact.number_of_days)}",
                f"• Start date: {value(contact.start_date)}",
            ]
        else:
            lines += [
                f"• Email: {value(contact.email)}",
                f"• Nombre de jours: {value(contact.number_of_days)}",
                f"• Date de début: {value(contact.start_date)}",
            ]

    body = "\n".join(lines)
    if en:
        recorded = "Your rental request has been recorded." if rental else "Your request has been recorded."
        return (
            f"Perfect! ✅\n\n*Information received:*\n{body}\n\n{recorded} "
            "A member of our team will contact you shortly to finalize your booking.\n\n"
            "Thank you for your trust! 🙏"
        )
    recorded = (
        "Votre demande de location a été enregistrée." if rental
        else "Votre demande a été enregistrée."
    )
    return (
        f"Parfait ! ✅\n\n*Informations reçues :*\n{body}\n\n{recorded} "
        "Un membre de notre équipe vous contactera dans les plus brefs délais "
        "pour finaliser votre réservation.\n\nMerci de votre confiance ! 🙏"
    )


# ── Search results ───────────────────────────────────────────

def search_intro(service: str, town: str, budget: Optional[float], language: str) -> str:
    amount = format_price(budget, language)
    if language == "en":
        return (
            f"Here are the best options for your search for {service} in {town} "
            f"with a budget of {amount} {CURRENCY}:"
        )
    return (
        f"Voici les meilleures options pour votre recherche de {service} à {town} "
        f"avec un budget de {amount} {CURRENCY} :"
    )


def offer_card(offer: Offer, base_url: str, language: str) -> str:
    """One offer as a WhatsApp message body (also used as the media caption)."""
    en = language == "en"
    price = format_price(offer.price, language)
    lines = [
        f"🏷️ *{offer.display_name(language)}*",
        f"💰 {'Price' if en else 'Prix'}: {price} {CURRENCY}",
        f"📍 {'Location' if en else 'Lieu'}: {offer.town(language)}",
    ]
    if isinstance(offer, PropertyOffer):
        area = f"{offer.area:g} m²" if offer.area else "-"
        bedrooms = offer.bedrooms if offer.bedrooms is not None else "-"
        bathrooms = offer.bathrooms if offer.bathrooms is not None else "-"
        lines += [
            f"🛏️ {'Bedrooms' if en else 'Chambres'}: {bedrooms}",
            f"🚿 {'Bathrooms' if en else 'Douches'}: {bathrooms}",
            f"📏 {'Area' if en else 'Superficie'}: {area}",
        ]
    elif isinstance(offer, VehicleOffer):
        mileage = f"{format_price(offer.mileage, language)} km" if offer.mileage else "-"
        lines += [
            f"🚗 {'Brand' if en else 'Marque'}: {offer.brand(language) or '-'}",
            f"🔧 {'Model' if en else 'Modèle'}: {offer.model(language) or '-'}",
            f"📅 {'Year' if en else 'Année'}: {offer.year or '-'}",
            f"🛣️ {'Mileage' if en else 'Kilométrage'}: {mileage}",
        ]
    lines += [
        f"📝 Description: {offer.description or '-'}",
        f"🔗 {'View product' if en else 'Voir le produit'}: {product_link(base_url, offer.id)}",
    ]
    return "\n".join(lines)


def closing_prompt(language: str) -> str:
    if language == "en":
        return "Let me know if you're interested in any of these offers!"
    return "N'hésitez pas à me dire si l'une de ces offres vous intéresse !"


def suggestions_message(
    offers: Sequence[Offer], base_url: str, language: str,
) -> str:
    """Numbered alternatives, shown when no offer matched exactly."""
    en = language == "en"
    if en:
        text = "We didn't find exact offers, but here are some alternatives within your budget and region:\n\n"
    else:
        text = (
            "Nous n'avons pas trouvé d'offres exactes, mais voici quelques "
            "alternatives dans votre budget et région :\n\n"
        )
    for i, offer in enumerate(offers, start=1):
        where = "in" if en else "à"
        text += (
            f"{i}. {offer.display_name(language)} {where} {offer.town(language)} - "
            f"{format_price(offer.price, language)} {CURRENCY}\n"
            f"🔗 {product_link(base_url, offer.id)}\n\n"
        )
    return text.rstrip("\n")


def no_results(service: str, town: str, budget: Optional[float], language: str) -> str:
    amount = format_price(budget, language)
    if language == "en":
        return (
            f"Sorry, I couldn't find offers matching your criteria ({service} in "
            f"{town} for {amount} {CURRENCY}).\n\n"
            "💡 Suggestions:\n"
            "• Try with a slightly higher budget\n"
            "• Search in a neighboring city\n"
            "• Specify a different type of offer\n\n"
            "Let me know if you'd like to adjust your search criteria!"
        )
    return (
        f"Désolé, je n'ai pas trouvé d'offres correspondant à vos critères "
        f"({service} à {town} pour {amount} {CURRENCY}).\n\n"
        "💡 Suggestions:\n"
        "• Essayez avec un budget légèrement plus élevé\n"
        "• Recherchez dans une ville voisine\n"
        "• Précisez un autre type d'offre\n\n"
        "Dites-moi si vous souhaitez ajuster vos critères de recherche !"
    )


# Human wording of each slot for the missing-criteria prompt
SLOT_LABELS = {
    "fr": {
        "service": "le produit ou service recherché",
        "town": "la ville",
        "budget": "le budget",
        "offer_type": "le type (véhicule ou immobilier)",
    },
    "en": {
        "service": "the product or service wanted",
        "town": "town or city",
        "budget": "budget",
        "offer_type": "type (vehicle or real estate)",
    },
}


def slot_labels(missing: Sequence[str], language: str) -> list[str]:
    labels = SLOT_LABELS.get(language, SLOT_LABELS["fr"])
    return [labels.get(slot, slot) for slot in missing]
