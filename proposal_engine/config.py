# proposal_engine/config.py
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Supabase (snapshot store). Optional so the core runs without persistence.
    supabase_url: Optional[str] = Field(None, alias="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(None, alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: Optional[str] = Field(None, alias="SUPABASE_SERVICE_ROLE_KEY")
    snapshot_table: str = Field("proposal_versions", alias="SNAPSHOT_TABLE")

    # AI gateway (OpenAI-compatible chat completions)
    ai_gateway_url: Optional[str] = Field(None, alias="AI_GATEWAY_URL")
    ai_api_key: Optional[str] = Field(None, alias="AI_API_KEY")
    ai_model: str = Field("google/gemini-3-flash-preview", alias="AI_MODEL")
    ai_temperature: float = Field(0.7, alias="AI_TEMPERATURE")
    ai_max_tokens: int = Field(2000, alias="AI_MAX_TOKENS")
    # The AI client has no timeout of its own; the HTTP layer passes this one.
    ai_timeout_seconds: Optional[float] = Field(60.0, alias="AI_TIMEOUT_SECONDS")

    # Document defaults
    firm_name: str = Field("Nuestra Firma", alias="FIRM_NAME")
    firm_city: str = Field("Ciudad de México", alias="FIRM_CITY")
    output_dir: str = Field("/tmp", alias="OUTPUT_DIR")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# -----------------------------
# Static boilerplate used by the content assembler and the pricing engine
# -----------------------------
INTRO_GREETING = (
    "Con el gusto de saludarle, en primer lugar, agradecemos la oportunidad de considerar a "
    "{firm_name} como sus asesores legales en relación con {service_type}."
)
DEFAULT_SERVICE_TYPE = "el análisis y planeación corporativo-fiscal requerido"

SERVICES_INTRO = (
    "Finalmente, sabemos que gracias al crecimiento sostenido que han tenido, las Empresas "
    "requieren la implementación de los siguientes servicios:"
)

TRANSITION_TEXT = (
    "Por lo anterior, será necesario analizar esquemas que permitan eficientizar, en la medida "
    "de lo posible y con total apego a derecho, los recursos económicos, humanos y materiales con "
    "que cuentan, así como implementar una estructura corporativa sólida de cara a las "
    "proyecciones de crecimiento que se tienen."
)

PRICING_INTRO = (
    "La presente propuesta de honorarios se realiza con base en la experiencia del personal "
    "solicitado, así como el número de horas hombre que se dedicarán en el estudio, análisis, "
    "desarrollo, implementación y seguimiento continuo de la propuesta."
)
PRICING_SCHEME_LEAD = "Por tal motivo, se propone el siguiente esquema de honorarios:"

DEFAULT_INITIAL_PAYMENT_DESCRIPTION = "estudio, análisis y propuesta"
DEFAULT_CLIENT_OBJECTIVE = "los servicios solicitados"

DEFAULT_EXCLUSIONS = (
    "La presente propuesta no incluye servicios o gastos adicionales que no se encuentren "
    "expresamente previstos tales como son gastos notariales, pago de derechos, cuotas de "
    "terceros, legalización o apostilla de documentos, entre otros que sean necesarios y que "
    "únicamente serán erogados previa autorización de su parte."
)

CLOSING_FAREWELL = (
    "Como Firma, es un honor poder colaborar con ustedes brindándoles un servicio de la más alta "
    "calidad técnica y profesional. Agradecemos la oportunidad de presentarles esta propuesta de "
    "honorarios, y confiamos en la capacidad de nuestra Firma para brindarles un servicio que "
    "satisfaga sus necesidades, haciendo uso de nuestra amplia experiencia profesional.\n\n"
    "Sin otro particular por el momento, reciba un cordial saludo, quedando a sus órdenes para "
    "cualquier duda o aclaración al respecto."
)

ACCEPTANCE_TEXT = (
    "En caso de aceptar la propuesta de honorarios que se describe en el cuerpo de la presente, "
    "les agradeceremos nos lo indiquen a fin de hacerles llegar una liga que permita hacerlo de "
    "forma electrónica.\n\n"
    "FIRMA DE CONFORMIDAD Y ACEPTACIÓN:\n"
    "______________________________\n\n"
    "Esta propuesta tiene vigencia de 30 días a partir de su fecha de envío."
)

HEADING_BACKGROUND = "I. ANTECEDENTES Y ALCANCE DE LOS SERVICIOS"
HEADING_PRICING = "II. PROPUESTA DE HONORARIOS"
HEADING_GUARANTEES = "III. GARANTÍAS DE SATISFACCIÓN"
