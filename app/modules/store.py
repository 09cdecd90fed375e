import csv
import io
import os
import logging
from typing import List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .errors import CorruptDatasetError, PersistError

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPE = "text/csv"
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

Row = List[str]


def parse_dataset(body: bytes, key: str = "") -> List[Row]:
    """
    Parse a persisted CSV object into rows, header included
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptDatasetError(f"{key} is not valid UTF-8: {e}")

    try:
        rows = list(csv.reader(io.StringIO(text, newline=""), strict=True))
    except csv.Error as e:
        raise CorruptDatasetError(f"{key} is not valid CSV: {e}")

    width = None
    for line_number, row in enumerate(rows, start=1):
        # Blank lines carry no record
        if not row:
            continue
        if width is None:
            width = len(row)
        elif len(row) != width:
            raise CorruptDatasetError(
                f"{key} line {line_number} has {len(row)} fields, expected {width}"
            )
    return [row for row in rows if row]


def serialize_dataset(rows: Sequence[Sequence[str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class DatasetStore:
    """
    Append-only CSV datasets kept as whole objects in an S3 bucket
    """
    def __init__(self, s3_client, bucket: str, local_output_dir: Optional[str] = None):
        self.s3 = s3_client
        self.bucket = bucket
        self.local_output_dir = local_output_dir

    def exists(self, key: str) -> bool:
        """
        Probe for the object; a missing object is the normal first-run state
        """
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise PersistError(f"Error checking s3://{self.bucket}/{key}: {e}")
        except BotoCoreError as e:
            raise PersistError(f"Error checking s3://{self.bucket}/{key}: {e}")

    def load(self, key: str) -> List[Row]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise PersistError(f"Error fetching existing s3://{self.bucket}/{key}: {e}")
        return parse_dataset(body, key)

    def merge_and_persist(
        self,
        key: str,
        header: Sequence[str],
        new_rows: Sequence[Row],
        local_name: Optional[str] = None,
    ) -> int:
        """
        Append new_rows to the dataset stored under key and write it back in one put.

        Returns the number of appended rows.
        """
        if self.exists(key):
            rows = self.load(key)
            logger.info(f"Loaded {len(rows)} existing lines from s3://{self.bucket}/{key}")
        else:
            logger.info(f"No existing {key} file found. A new one will be created.")
            rows = []

        if not rows:
            rows = [list(header)]
        elif rows[0] != list(header):
            logger.warning(f"Header of {key} differs from the current schema, keeping the stored header")

        width = len(rows[0])
        for row in new_rows:
            if len(row) != width:
                raise CorruptDatasetError(
                    f"{key} has {width} columns but new rows have {len(row)}; "
                    f"refusing to mix schemas in one dataset"
                )

        rows.extend(list(row) for row in new_rows)
        body = serialize_dataset(rows)

        if local_name and self.local_output_dir:
            self.write_local_copy(local_name, body)

        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=CSV_CONTENT_TYPE)
        except (ClientError, BotoCoreError) as e:
            raise PersistError(f"Error uploading s3://{self.bucket}/{key}: {e}")

        logger.info(f"Appended {len(new_rows)} rows to s3://{self.bucket}/{key}")
        return len(new_rows)

    def write_local_copy(self, name: str, body: bytes) -> bool:
        """
        Best-effort copy of a dataset on the local filesystem
        """
        path = os.path.join(self.local_output_dir, f"{name}.csv")
        try:
            os.makedirs(self.local_output_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(body)
            return True
        except OSError as e:
            logger.warning(f"Error saving {path} locally: {e}")
            return False
