"""Reusable Testcontainers configurations for integration tests.

Provides a MongoDB container started with root credentials, the way the
compose stack starts the document database.
"""

from testcontainers.mongodb import MongoDbContainer as BaseMongoDbContainer


class MongoDBContainer(BaseMongoDbContainer):
    """Standalone MongoDB container with a root credential pair."""

    def __init__(
        self,
        image: str = "mongo:7.0",
        username: str = "root",
        password: str = "example",
        **kwargs: object,
    ) -> None:
        """Initialize MongoDB container.

        Args:
            image: MongoDB image tag
            username: MONGO_INITDB_ROOT_USERNAME
            password: MONGO_INITDB_ROOT_PASSWORD
            **kwargs: Additional container arguments
        """
        super().__init__(image=image, username=username, password=password, **kwargs)


def docker_available() -> bool:
    """Check whether a Docker daemon is reachable for testcontainers."""
    try:
        import docker

        client = docker.from_env()
        client.ping()
        client.close()
        return True
    except Exception:
        return False

