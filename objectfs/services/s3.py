from typing import List, Optional
from botocore.session import get_session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from cryptography.fernet import Fernet
from ..models.config import FileSystemConfig, DEFAULT_MAX_COPY_SIZE, DEFAULT_COPY_CHUNK_SIZE, DEFAULT_DOWNLOAD_CHUNK_SIZE
from ..models.files import RemoteListingEntry, UploadOptions
from ..errors import TransportError, NotFoundError
from ..utils.files import get_mime_type
from .client import RemoteObjectClient
import logging
import os
import urllib.parse

class S3Error(TransportError):
    """Exception raised when managing S3 files."""
    pass

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

class S3Service(RemoteObjectClient):

    def __init__(self, s3_endpoint_url: str, s3_access_key_id: str, s3_secret_access_key: str, region: str,
                 bucket: Optional[str] = None, with_checksums: bool = False, acl: Optional[str] = None,
                 storage_class: Optional[str] = None, max_copy_size: int = DEFAULT_MAX_COPY_SIZE,
                 copy_chunk_size: int = DEFAULT_COPY_CHUNK_SIZE, download_chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE,
                 encryption_key: Optional[str] = None, connect_timeout: Optional[float] = None,
                 read_timeout: Optional[float] = None, max_attempts: Optional[int] = None):
        """Initiate the S3 service.

        Args:
            s3_endpoint_url (str): The endpoint URL of the S3 service.
            s3_access_key_id (str): The access key ID for S3 authentication.
            s3_secret_access_key (str): The secret access key for S3 authentication.
            region (str): The AWS region where the S3 bucket is located.
            bucket (str, optional): The bucket of every scope. When None, the scope id is the bucket name.
            with_checksums (bool, optional): Whether to enable checksum handling. When False (default),
            checksum use is disabled for compatibility with S3-compatible services that do not support checksums.
            acl (str, optional): The canned ACL of uploaded objects.
            storage_class (str, optional): The default storage class of uploaded objects.
            max_copy_size (int, optional): Objects larger than this are copied part by part.
            copy_chunk_size (int, optional): The size of the parts of a multipart copy.
            download_chunk_size (int, optional): The size of the chunks streamed to disk on download.
            encryption_key (str, optional): A Fernet key, object payloads are encrypted when provided.
            connect_timeout (float, optional): The connection timeout in seconds.
            read_timeout (float, optional): The read timeout in seconds.
            max_attempts (int, optional): The maximum number of attempts of a request, retries included.
        """
        self.s3_endpoint_url = s3_endpoint_url
        self.s3_access_key_id = s3_access_key_id
        self.s3_secret_access_key = s3_secret_access_key
        self.region = region
        self.bucket = bucket
        self.with_checksums = with_checksums
        self.acl = acl
        self.storage_class = storage_class
        self.max_copy_size = max_copy_size
        self.copy_chunk_size = copy_chunk_size
        self.download_chunk_size = download_chunk_size
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_attempts = max_attempts
        self.fernet = Fernet(encryption_key) if encryption_key else None
        self._client = None

    @classmethod
    def from_config(cls, config: FileSystemConfig) -> "S3Service":
        """Make a S3 service from file system settings.

        Args:
            config (FileSystemConfig): The file system settings.

        Returns:
            S3Service: The S3 service.
        """
        return cls(s3_endpoint_url=config.endpoint_url,
                   s3_access_key_id=config.access_key_id,
                   s3_secret_access_key=config.secret_access_key,
                   region=config.region,
                   bucket=config.bucket,
                   with_checksums=config.with_checksums,
                   acl=config.acl,
                   storage_class=config.upload_storage_class,
                   max_copy_size=config.max_copy_size,
                   copy_chunk_size=config.copy_chunk_size,
                   download_chunk_size=config.download_chunk_size,
                   encryption_key=config.encryption_key,
                   connect_timeout=config.connect_timeout,
                   read_timeout=config.read_timeout,
                   max_attempts=config.max_attempts)

    def to_bucket(self, scope: str) -> str:
        """Get the bucket holding the objects of a scope.

        Args:
            scope (str): The scope id.

        Returns:
            str: The bucket name.
        """
        return self.bucket if self.bucket else scope

    def list_objects(self, scope: str, key_prefix: str) -> List[RemoteListingEntry]:
        """List objects under a prefix in S3 storage, at any depth

        Args:
            scope (str): The scope of the objects
            key_prefix (str): Prefix of the keys in S3

        Returns:
            List[RemoteListingEntry]: The S3 objects.
        """
        bucket = self.to_bucket(scope)
        entries = []
        try:
            paginator = self._get_client().get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=bucket, Prefix=key_prefix):
                for obj in page.get('Contents', []):
                    entries.append(RemoteListingEntry(
                        key=obj['Key'],
                        last_modified=obj.get('LastModified'),
                        etag=self._clean_etag(obj.get('ETag')),
                        size=obj.get('Size', 0)))
        except (ClientError, BotoCoreError) as e:
            raise S3Error(f"Failed to list {self.s3_endpoint_url}/{bucket}/{key_prefix}: {e}") from e
        return entries

    def get_object(self, scope: str, key: str) -> RemoteListingEntry:
        """Get the description of an object in S3 storage

        Args:
            scope (str): The scope of the object
            key (str): Key of the object in S3

        Raises:
            NotFoundError: When the object does not exist
            S3Error: When the S3 call fails

        Returns:
            RemoteListingEntry: The S3 object.
        """
        bucket = self.to_bucket(scope)
        try:
            response = self._get_client().head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if self._is_not_found(e):
                raise NotFoundError(f"s3://{bucket}/{key}") from e
            raise S3Error(f"Failed to get {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise S3Error(f"Failed to get {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        return RemoteListingEntry(
            key=key,
            last_modified=response.get("LastModified"),
            etag=self._clean_etag(response.get("ETag")),
            size=response.get("ContentLength", 0))

    def download(self, scope: str, key: str, local_dir: str) -> str:
        """Download an object from S3 storage to a local folder

        Args:
            scope (str): The scope of the object
            key (str): Key of the object in S3
            local_dir (str): The local folder

        Raises:
            NotFoundError: When the object does not exist
            S3Error: When the S3 call fails

        Returns:
            str: Path of the downloaded file
        """
        bucket = self.to_bucket(scope)
        file_name = os.path.basename(key.rstrip("/")) or "object"
        local_path = os.path.join(local_dir, file_name)
        try:
            response = self._get_client().get_object(Bucket=bucket, Key=key)
            with open(local_path, "wb") as f:
                if self.fernet:
                    f.write(self.fernet.decrypt(response['Body'].read()))
                else:
                    for chunk in response['Body'].iter_chunks(self.download_chunk_size):
                        f.write(chunk)
        except ClientError as e:
            if self._is_not_found(e):
                raise NotFoundError(f"s3://{bucket}/{key}") from e
            raise S3Error(f"Failed to download {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise S3Error(f"Failed to download {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        logging.info(f"File downloaded path : {self.s3_endpoint_url}/{bucket}/{key}")
        return local_path

    def upload(self, local_path: str, key: str, scope: str, options: Optional[UploadOptions] = None) -> int:
        """Upload local file to S3 storage

        Args:
            local_path (str): Path to local file
            key (str): Key of the object in S3
            scope (str): The scope of the object
            options (UploadOptions, optional): Content type, tags and storage class of the object.

        Raises:
            S3Error: When S3 upload fails

        Returns:
            int: The uploaded object size in bytes
        """
        options = options or UploadOptions()
        mime_type = options.content_type or get_mime_type(local_path)
        with open(local_path, 'rb') as file:
            data = self.fernet.encrypt(file.read()) if self.fernet else file
            return self._upload_fileobj(data=data, bucket=self.to_bucket(scope), key=key,
                                        mimetype=mime_type, options=options)

    def upload_empty_marker(self, key: str, scope: str) -> bool:
        """Upload an empty object to S3 storage, used as a folder placeholder

        Args:
            key (str): Key of the object in S3, ending with a slash
            scope (str): The scope of the object

        Returns:
            bool: True if the marker was uploaded
        """
        bucket = self.to_bucket(scope)
        put_kwargs = {
            'Bucket': bucket,
            'Key': key,
            'Body': b"",
            'ContentLength': 0
        }
        if self.acl:
            put_kwargs['ACL'] = self.acl
        try:
            resp = self._get_client().put_object(**put_kwargs)
        except (ClientError, BotoCoreError) as e:
            raise S3Error(f"Failed to create folder {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        if resp["ResponseMetadata"]["HTTPStatusCode"] == 200:
            logging.info(f"Folder created path : {self.s3_endpoint_url}/{bucket}/{key}")
            return True
        return False

    def delete_object(self, scope: str, key: str) -> bool:
        """Delete file from S3 storage

        Args:
            scope (str): The scope of the object
            key (str): Key of the object in S3

        Returns:
            bool: True if deleted, False otherwise
        """
        bucket = self.to_bucket(scope)
        try:
            response = self._get_client().delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if self._is_not_found(e):
                return False
            raise S3Error(f"Failed to delete {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise S3Error(f"Failed to delete {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        if response["ResponseMetadata"]["HTTPStatusCode"] == 204:
            logging.info(f"File deleted path : {self.s3_endpoint_url}/{bucket}/{key}")
            return True
        return False

    def copy_object(self, source_scope: str, source_key: str, target_scope: str, target_key: str,
                    options: Optional[UploadOptions] = None, size: Optional[int] = None) -> bool:
        """Copy a file from one location to another in S3 storage

        Objects larger than the maximum copy size are copied part by part.

        Args:
            source_scope (str): The scope of the source object
            source_key (str): Key of the source object in S3
            target_scope (str): The scope of the target object
            target_key (str): Key of the target object in S3
            options (UploadOptions, optional): Content type, tags and storage class of the copy.
            size (int, optional): Size of the source object, looked up when None.

        Returns:
            bool: True if copied, False otherwise
        """
        options = options or UploadOptions()
        source_bucket = self.to_bucket(source_scope)
        target_bucket = self.to_bucket(target_scope)
        if size is None:
            size = self.get_object(source_scope, source_key).size
        copy_source = {'Bucket': source_bucket, 'Key': source_key}
        if size > self.max_copy_size:
            return self._multipart_copy(copy_source, target_bucket, target_key, size, options)

        copy_kwargs = {
            'Bucket': target_bucket,
            'Key': target_key,
            'CopySource': copy_source
        }
        if options.content_type:
            copy_kwargs['MetadataDirective'] = 'REPLACE'
            copy_kwargs['ContentType'] = options.content_type
        if options.tags:
            copy_kwargs['TaggingDirective'] = 'REPLACE'
            copy_kwargs['Tagging'] = urllib.parse.urlencode(options.tags)
        copy_kwargs.update(self._object_kwargs(options))
        try:
            response = self._get_client().copy_object(**copy_kwargs)
        except ClientError as e:
            if self._is_not_found(e):
                raise NotFoundError(f"s3://{source_bucket}/{source_key}") from e
            raise S3Error(f"Failed to copy {source_bucket}/{source_key} to {target_bucket}/{target_key}: {e}") from e
        except BotoCoreError as e:
            raise S3Error(f"Failed to copy {source_bucket}/{source_key} to {target_bucket}/{target_key}: {e}") from e
        if response["ResponseMetadata"]["HTTPStatusCode"] == 200:
            logging.info(
                f"File copied path : {self.s3_endpoint_url}/{target_bucket}/{target_key}")
            return True
        return False

    #
    # Private methods
    #

    def _get_client(self):
        """Get the S3 client, created on first use with the provided credentials and endpoint URL.

        Returns:
            Any: The S3 client.
        """
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        """Create an S3 client using the provided credentials and endpoint URL.

        Returns:
            Any: The S3 client.
        """
        settings = {
            'payload_signing_enabled': False,
            'use_accelerate_endpoint': False,
            'addressing_style': 'path'
        }
        if not self.with_checksums:
            # Completely disable checksums for S3-compatible services that don't support them
            settings['checksum_mode'] = 'DISABLED'
            settings['request_checksum_calculation'] = 'when_required'
            settings['response_checksum_validation'] = 'when_required'
        config_kwargs = {}
        if self.connect_timeout is not None:
            config_kwargs['connect_timeout'] = self.connect_timeout
        if self.read_timeout is not None:
            config_kwargs['read_timeout'] = self.read_timeout
        if self.max_attempts is not None:
            config_kwargs['retries'] = {'max_attempts': self.max_attempts}
        config = Config(
            s3=settings,
            signature_version='s3v4',
            disable_request_compression=True,
            **config_kwargs
        )

        session = get_session()
        return session.create_client(
            's3',
            region_name=self.region,
            endpoint_url=self.s3_endpoint_url,
            aws_secret_access_key=self.s3_secret_access_key,
            aws_access_key_id=self.s3_access_key_id,
            config=config)

    def _upload_fileobj(self, data, bucket: str, key: str, mimetype: str, options: UploadOptions) -> int:
        """Perform the data upload to S3

        Args:
            data (Any): Data to be uploaded, bytes or a binary file object
            bucket (str): Destination bucket
            key (str): Path of the object in the bucket
            mimetype (str): Object mimetype
            options (UploadOptions): Tags and storage class of the object

        Raises:
            S3Error: When S3 upload fails

        Returns:
            int: The object size in bytes
        """
        put_kwargs = {
            'Bucket': bucket,
            'Key': key,
            'Body': data,
            'ContentType': mimetype
        }
        if options.tags:
            put_kwargs['Tagging'] = urllib.parse.urlencode(options.tags)
        put_kwargs.update(self._object_kwargs(options))
        try:
            client = self._get_client()
            resp = client.put_object(**put_kwargs)
            if resp["ResponseMetadata"]["HTTPStatusCode"] == 200:
                logging.info(
                    f"File uploaded path : {self.s3_endpoint_url}/{bucket}/{key}")
                resp = client.head_object(Bucket=bucket, Key=key)
                return resp.get("ContentLength", 0)
        except (ClientError, BotoCoreError) as e:
            raise S3Error(f"Failed to upload {self.s3_endpoint_url}/{bucket}/{key}: {e}") from e
        raise S3Error(f"Failed to upload {self.s3_endpoint_url}/{bucket}/{key}")

    def _multipart_copy(self, copy_source: dict, bucket: str, key: str, size: int, options: UploadOptions) -> bool:
        """Copy a large object part by part.

        Args:
            copy_source (dict): Bucket and key of the source object
            bucket (str): Destination bucket
            key (str): Path of the copy in the bucket
            size (int): Size of the source object
            options (UploadOptions): Content type, tags and storage class of the copy

        Raises:
            S3Error: When a part fails to copy, the multipart upload is aborted

        Returns:
            bool: True if copied
        """
        client = self._get_client()
        create_kwargs = {'Bucket': bucket, 'Key': key}
        if options.content_type:
            create_kwargs['ContentType'] = options.content_type
        if options.tags:
            create_kwargs['Tagging'] = urllib.parse.urlencode(options.tags)
        create_kwargs.update(self._object_kwargs(options))
        try:
            upload_id = client.create_multipart_upload(**create_kwargs)['UploadId']
        except (ClientError, BotoCoreError) as e:
            raise S3Error(f"Failed to start copy to {bucket}/{key}: {e}") from e

        parts = []
        try:
            for part_number, start in enumerate(range(0, size, self.copy_chunk_size), start=1):
                end = min(start + self.copy_chunk_size, size) - 1
                resp = client.upload_part_copy(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    CopySource=copy_source,
                    CopySourceRange=f"bytes={start}-{end}")
                parts.append({'PartNumber': part_number, 'ETag': resp['CopyPartResult']['ETag']})
            client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={'Parts': parts})
        except (ClientError, BotoCoreError) as e:
            try:
                client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
            except (ClientError, BotoCoreError) as abort_error:
                logging.warning(f"Failed to abort multipart upload {upload_id} of {bucket}/{key}: {abort_error}")
            raise S3Error(f"Failed to copy {copy_source['Bucket']}/{copy_source['Key']} to {bucket}/{key}: {e}") from e
        logging.info(
            f"File copied path : {self.s3_endpoint_url}/{bucket}/{key} ({len(parts)} parts)")
        return True

    def _object_kwargs(self, options: UploadOptions) -> dict:
        kwargs = {}
        storage_class = options.storage_class or self.storage_class
        if storage_class:
            kwargs['StorageClass'] = storage_class
        if self.acl:
            kwargs['ACL'] = self.acl
        return kwargs

    @staticmethod
    def _clean_etag(etag: Optional[str]) -> Optional[str]:
        return etag.strip('"') if etag else None

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return code in NOT_FOUND_CODES or status == 404
