"""Initialize the MinIO photos bucket for Krafts.

Profile and post photos are served directly from the bucket, so objects
must be publicly readable. Uploads still go through the API.
"""

import json
import sys
from pathlib import Path

from minio import Minio

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from krafts.core.config import settings  # noqa: E402

PHOTOS_BUCKET = settings.minio_bucket


def public_read_policy(bucket_name: str) -> dict:
    """Bucket policy allowing anonymous GET on every object."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket_name}/*"],
            }
        ],
    }


def init_minio():
    """Create the photos bucket and make it publicly readable."""
    client = Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
    )

    if not client.bucket_exists(PHOTOS_BUCKET):
        client.make_bucket(PHOTOS_BUCKET)
        print(f"Bucket '{PHOTOS_BUCKET}' created successfully.")
    else:
        print(f"Bucket '{PHOTOS_BUCKET}' already exists.")

    client.set_bucket_policy(PHOTOS_BUCKET, json.dumps(public_read_policy(PHOTOS_BUCKET)))
    print(f"Public read policy applied to '{PHOTOS_BUCKET}'.")

    print("\nMinIO initialization complete.")
    print("Bucket structure:")
    print(f"  {PHOTOS_BUCKET}/")
    print("    ├── profiles/<user_id>/   # Profile photos")
    print("    └── posts/<post_id>/      # Post images")


if __name__ == "__main__":
    init_minio()
