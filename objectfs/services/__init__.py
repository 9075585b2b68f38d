from .files import ObjectFileSystem, ObjectFileSystemProvider
from ..models.files import FileNode, ObjectMetadata, UploadOptions
from ..models.options import OpenOption, CopyOption, AccessMode
from .client import RemoteObjectClient
from .channels import BridgeChannel, UploadOutputStream
from .listing import DirectoryListing, reconstruct_children
from .attributes import AttributeResolver, MetadataCache
from .registry import RootRegistry
from .s3 import S3Service, S3Error
