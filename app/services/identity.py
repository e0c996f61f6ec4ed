"""
Identity service: registration, login and restaurant join-by-code.

A new user either founds a restaurant (its name is free, the code given
becomes the join code) or joins an existing one by presenting that code.
The first registrant of a restaurant becomes its owner.
"""

import logging
from typing import Any, Dict, Tuple

from app.auth import create_access_token, hash_password, verify_password
from app.errors import AppError, Conflict, DuplicateKeyError, NotFound, Unauthorized, ValidationError
from app.storage.base import Storage

logger = logging.getLogger(__name__)


def _required(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty.")
    return value


class IdentityService:
    """Users and restaurant membership."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def register(
        self,
        username: str,
        email: str,
        password: str,
        restaurant_name: str,
        restaurant_code: str,
    ) -> Dict[str, Any]:
        """
        Register a user under a restaurant.

        Returns {"user_id", "restaurant_id", "is_owner"}.
        Raises ValidationError for blank fields and Conflict when the
        username/email is taken or the restaurant code does not match.
        """
        username = _required(username, "username")
        email = _required(email, "email")
        if "@" not in email:
            raise ValidationError("email is not valid.")
        if not password:
            raise ValidationError("password must not be empty.")
        restaurant_name = _required(restaurant_name, "restaurantName")
        restaurant_code = _required(restaurant_code, "restaurantCode")

        if self.storage.find_user_by_username(username) is not None:
            raise Conflict(f"Username '{username}' is already taken.")
        if self.storage.find_user_by_email(email) is not None:
            raise Conflict(f"Email '{email}' is already registered.")

        restaurant, created = self._resolve_restaurant(restaurant_name, restaurant_code)

        try:
            user = self.storage.create_user({
                "username": username,
                "email": email,
                "password_hash": hash_password(password),
                "restaurant_id": restaurant["id"],
            })
        except AppError:
            # A restaurant founded by a failed registration must not keep its name
            if created and self.storage.delete_restaurant(restaurant["id"]):
                logger.warning("Restaurant %s removed after failed registration", restaurant["id"])
            raise

        is_owner = False
        if not restaurant.get("owner_id"):
            is_owner = self.storage.set_restaurant_owner(restaurant["id"], user["id"])

        logger.info(
            "User %s registered in restaurant %s%s",
            user["id"], restaurant["id"], " as owner" if is_owner else "",
        )
        return {"user_id": user["id"], "restaurant_id": restaurant["id"], "is_owner": is_owner}

    def _resolve_restaurant(self, name: str, code: str) -> Tuple[Dict[str, Any], bool]:
        """Find the restaurant and check its code, or create it. The flag is True if created."""
        restaurant = self.storage.find_restaurant_by_name(name)
        if restaurant is None:
            try:
                restaurant = self.storage.create_restaurant({"name": name, "code": code, "owner_id": None})
                logger.info("Restaurant %s '%s' created", restaurant["id"], name)
                return restaurant, True
            except DuplicateKeyError:
                # Created concurrently by another registration
                restaurant = self.storage.find_restaurant_by_name(name)
                if restaurant is None:
                    raise
        if restaurant["code"] != code:
            raise Conflict("The restaurant already exists. The code to join it is incorrect.")
        return restaurant, False

    def login(self, username: str, password: str, restaurant_name: str) -> Dict[str, Any]:
        """
        Check credentials and the restaurant name; return session info with a JWT.

        Raises Unauthorized on unknown user, wrong restaurant or wrong password.
        """
        user = self.storage.find_user_by_username((username or "").strip())
        if user is None:
            raise Unauthorized("User not found.")

        restaurant = self.storage.get_restaurant(user["restaurant_id"])
        if restaurant is None or restaurant["name"] != (restaurant_name or "").strip():
            raise Unauthorized("Incorrect restaurant name.")

        if not verify_password(password or "", user["password_hash"]):
            raise Unauthorized("Incorrect password.")

        token = create_access_token({"sub": user["id"], "restaurant_id": restaurant["id"]})
        logger.info("User %s logged in", user["id"])
        return {
            "user_id": user["id"],
            "username": user["username"],
            "restaurant_id": restaurant["id"],
            "restaurant_name": restaurant["name"],
            "access_token": token,
            "token_type": "bearer",
        }

    def get_user(self, user_id: str) -> Dict[str, Any]:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def get_user_restaurant(self, user_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """The user and the restaurant they belong to."""
        user = self.get_user(user_id)
        restaurant = self.storage.get_restaurant(user["restaurant_id"])
        if restaurant is None:
            raise NotFound("Restaurant", user["restaurant_id"])
        return user, restaurant
