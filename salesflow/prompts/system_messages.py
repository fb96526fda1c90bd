"""
Fixed customer-facing texts.

These are sent verbatim (they are not AI-voiced). Business-specific values
are injected from configuration, not hardcoded.
"""

from salesflow.config import settings

_biz = settings.business

PRODUCT_MENU = """¿Qué producto te interesa?
• Malla sombra confeccionada (medidas listas para instalar)
• Rollos de malla sombra
• Borde separador para jardín
• Ground cover antimaleza
• Malla monofilamento (mayoreo)"""

GREETING_TEXT = f"¡Hola! Bienvenido a {_biz.name}.\n\n{PRODUCT_MENU}"

ASK_PRODUCT_TEXT = f"Con gusto te ayudo. {PRODUCT_MENU}"

THANKS_TEXT = "¡Con gusto! Si necesitas algo más, aquí estoy."

GOODBYE_TEXT = "¡Gracias por escribirnos! Que tengas un excelente día."

OPT_OUT_TEXT = "Entendido, no te enviaremos más mensajes. ¡Que tengas buen día!"

SHIPPING_TEXT = (
    "Enviamos a todo México por paquetería. En las compras por Mercado Libre "
    "el costo de envío se calcula al momento de pagar según tu código postal."
)

LOCATION_TEXT = (
    "Somos tienda en línea y enviamos a todo el país. "
    f"Puedes ver todos nuestros productos aquí: {_biz.storefront_url}"
)

PAYMENT_TEXT = (
    "Puedes pagar con tarjeta de crédito o débito, transferencia o en efectivo "
    "en tiendas de conveniencia a través de Mercado Libre. "
    "Con tarjeta participante hay meses sin intereses."
)

DELIVERY_TIME_TEXT = (
    "Los pedidos se envían el mismo día o al día siguiente hábil. "
    "La entrega tarda de 2 a 5 días hábiles según tu zona."
)

INSTALLATION_TEXT = (
    "No ofrecemos servicio de instalación, pero la malla confeccionada ya viene "
    "con argollas en todo el perímetro para que la instales fácilmente con cuerda o tensores."
)

WARRANTY_TEXT = (
    "Nuestra malla sombra es de polietileno con protección UV y tiene garantía "
    "contra defectos de fabricación. Si algo llega mal, te la cambiamos."
)

OFF_TOPIC_TEXT = (
    "Solo puedo ayudarte con información de nuestros productos: malla sombra, "
    "borde separador, ground cover y malla monofilamento. ¿Qué necesitas?"
)

FALLBACK_TEXT = (
    "Disculpa, no logré entenderte. ¿Me puedes decir qué producto y qué medida necesitas?"
)

HUMAN_REQUEST_ACK = "¡Claro! Te comunico con un especialista. "

COMPLAINT_ACK = "Lamento mucho la situación. Un especialista revisará tu caso personalmente. "

CUSTOM_SIZE_ACK = "Las medidas especiales se cotizan de forma personalizada. "

WHOLESALE_ACK = "¡Excelente! Para compras de mayoreo un especialista te dará precio especial. "
