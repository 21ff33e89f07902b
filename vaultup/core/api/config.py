"""
API configuration module.

Provides comprehensive configuration for the upload API client.
Open for extension through custom configurations.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import ssl


@dataclass
class ProxyConfig:
    """
    Proxy configuration.
    
    Supports HTTP and HTTPS proxies.
    """
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    
    def to_aiohttp_proxy(self) -> Optional[str]:
        """Convert to aiohttp proxy format."""
        if not self.url:
            return None
        
        if self.username and self.password:
            # Insert credentials into URL
            if '://' in self.url:
                protocol, rest = self.url.split('://', 1)
                return f"{protocol}://{self.username}:{self.password}@{rest}"
        
        return self.url


@dataclass
class SSLConfig:
    """SSL/TLS configuration."""
    verify: bool = True
    ca_file: Optional[str] = None
    check_hostname: bool = True
    
    def create_ssl_context(self):
        """Create SSL context from configuration (False disables verification)."""
        if not self.verify:
            return False
        
        context = ssl.create_default_context()
        
        if self.ca_file:
            context.load_verify_locations(self.ca_file)
        
        context.check_hostname = self.check_hostname
        
        return context


@dataclass
class TimeoutConfig:
    """
    Timeout configuration.
    
    Control calls (init, complete, status) use the granular values;
    every chunk transfer uses the fixed chunk_timeout.
    """
    total: float = 300.0  # Total request timeout
    connect: float = 30.0  # Connection timeout
    sock_read: float = 60.0  # Socket read timeout
    sock_connect: float = 30.0  # Socket connect timeout
    chunk_timeout: float = 120.0  # Per-chunk transfer timeout
    
    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read,
            sock_connect=self.sock_connect
        )
    
    def to_chunk_timeout(self):
        """ClientTimeout applied to a single chunk request."""
        import aiohttp
        return aiohttp.ClientTimeout(total=self.chunk_timeout, connect=self.connect)


@dataclass
class RetryConfig:
    """
    Retry configuration for chunk transfers.
    
    A chunk gets max_retries attempts in total; base_delay of 0
    re-enqueues a failed chunk immediately.
    """
    max_retries: int = 3
    base_delay: float = 0.0
    max_delay: float = 16.0
    exponential_base: float = 2.0
    
    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class PollingConfig:
    """
    Job status polling configuration.
    
    Two cadences exist: the upload form polls fast and flags a stall
    after 10s, the process-wide observer polls slowly and waits 30s.
    """
    interval: float = 5.0
    stall_threshold: float = 30.0
    initial_delay: float = 0.0
    
    @classmethod
    def upload_form(cls) -> 'PollingConfig':
        """Cadence used right after an upload call returns a job."""
        return cls(interval=2.0, stall_threshold=10.0, initial_delay=1.0)
    
    @classmethod
    def global_observer(cls) -> 'PollingConfig':
        """Cadence used by the process-wide progress observer."""
        return cls(interval=5.0, stall_threshold=30.0)


@dataclass
class APIConfig:
    """
    Complete API configuration.
    
    Centralizes all configuration options for the upload API client.
    """
    base_url: str = 'http://localhost:8008'
    
    # Bearer credential; None means "not logged in"
    token: Optional[str] = None
    
    user_agent: str = 'vaultup/1.0.0'
    
    # Sub-configurations
    proxy: Optional[ProxyConfig] = None
    ssl: SSLConfig = field(default_factory=SSLConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    polling: PollingConfig = field(default_factory=PollingConfig.global_observer)
    
    # Additional headers
    extra_headers: Dict[str, str] = field(default_factory=dict)
    
    # Logging
    log_level: int = 20  # logging.INFO
    
    # Connection pool settings
    limit_per_host: int = 10
    limit: int = 100
    
    @classmethod
    def default(cls) -> 'APIConfig':
        """Create default configuration."""
        return cls()
    
    def url(self, path: str) -> str:
        """Join an endpoint path onto the base URL."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
    
    def get_connector_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp TCPConnector."""
        return {
            'limit': self.limit,
            'limit_per_host': self.limit_per_host,
            'ssl': self.ssl.create_ssl_context(),
        }
    
    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        headers = {
            'User-Agent': self.user_agent,
            **self.extra_headers
        }
        
        return {
            'headers': headers,
            'timeout': self.timeout.to_aiohttp_timeout(),
        }
