import os
import time
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.logger import get_logger
logger = get_logger("storage")


class StorageManager:
    """
    Stores generated media files (narration audio).

    Files always land under <output_dir>/uploads and are served by the API at
    /uploads. When Cloudflare R2 (S3 compatible) credentials are present the
    file is mirrored to the bucket, and if R2_PUBLIC_URL is set the public
    bucket URL is returned instead of the local one.
    """

    UPLOAD_PREFIX = "uploads"

    def __init__(self, output_dir: str = "outputs"):
        self.upload_dir = os.path.join(output_dir, self.UPLOAD_PREFIX)
        self.account_id = os.getenv("R2_ACCOUNT_ID")
        self.access_key = os.getenv("R2_ACCESS_KEY_ID")
        self.secret_key = os.getenv("R2_SECRET_ACCESS_KEY")
        self.bucket_name = os.getenv("R2_BUCKET_NAME")
        self.public_url = (os.getenv("R2_PUBLIC_URL") or "").rstrip("/")

        self.s3_client = None

        if all([self.account_id, self.access_key, self.secret_key, self.bucket_name]):
            try:
                self.s3_client = boto3.client(
                    service_name='s3',
                    endpoint_url=f'https://{self.account_id}.r2.cloudflarestorage.com',
                    aws_access_key_id=self.access_key,
                    aws_secret_access_key=self.secret_key,
                    region_name='auto'  # Must be 'auto' for Cloudflare R2
                )
                logger.info(f"[StorageManager] Initialized R2 client for bucket: {self.bucket_name}")
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"[StorageManager] Failed to initialize R2 client: {e}")
        else:
            logger.debug("[StorageManager] R2 credentials missing. Local storage only.")

    def save_audio(self, project_id: str, audio: bytes) -> str:
        """
        프로젝트 내레이션 오디오 저장.

        Args:
            project_id: 프로젝트 ID (파일명 접두사)
            audio: mp3 바이트

        Returns:
            오디오 URL (/uploads/<file> 또는 R2 공개 URL)
        """
        os.makedirs(self.upload_dir, exist_ok=True)
        filename = f"{project_id}-{int(time.time() * 1000)}.mp3"
        local_path = os.path.join(self.upload_dir, filename)
        with open(local_path, "wb") as f:
            f.write(audio)
        logger.info(f"[StorageManager] Audio saved: {local_path} ({len(audio)} bytes)")

        r2_path = f"{self.UPLOAD_PREFIX}/{filename}"
        if self.upload_file(local_path, r2_path) and self.public_url:
            return f"{self.public_url}/{r2_path}"
        return f"/{self.UPLOAD_PREFIX}/{filename}"

    def upload_file(self, local_path: str, r2_path: str) -> bool:
        """
        Uploads a local file to R2.

        Args:
            local_path: Path to the local file
            r2_path: Destination path in R2 (key)

        Returns:
            True if successful, False otherwise
        """
        if not self.s3_client:
            return False

        if not os.path.exists(local_path):
            logger.warning(f"[StorageManager] Local file not found: {local_path}")
            return False

        try:
            logger.info(f"[StorageManager] Uploading {local_path} to R2://{self.bucket_name}/{r2_path}...")
            self.s3_client.upload_file(local_path, self.bucket_name, r2_path)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[StorageManager] Upload failed: {e}")
            return False

