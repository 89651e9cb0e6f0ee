"""Authentication Middleware"""
import logging
from jose import JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer

from carecoord import config
from carecoord.auth.models import Principal
from carecoord.auth.jwt_verifier import JWTVerifier

logger = logging.getLogger(__name__)

security = HTTPBearer()
jwt_verifier = JWTVerifier(
    keycloak_url=config.KEYCLOAK_URL,
    realm=config.KEYCLOAK_REALM,
    algorithm=config.JWT_ALGORITHM,
)


async def verify_token(credentials=Depends(security)) -> Principal:
    """
    Verify JWT token from Keycloak and build the request principal.

    Expected JWT claims:
    - sub: user_id
    - realm_access.roles: list of role names
    """
    token = credentials.credentials

    try:
        payload = jwt_verifier.verify_and_decode(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}"
        )
    except Exception as e:
        logger.error(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token verification unavailable"
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject"
        )

    return Principal(
        sub=payload["sub"],
        roles=payload.get("realm_access", {}).get("roles", []),
        email=payload.get("email"),
        iat=payload.get("iat"),
        exp=payload.get("exp"),
    )
