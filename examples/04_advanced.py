"""
Advanced configuration
"""
import asyncio
import logging
from vaultup import VaultClient, setup_logging
from vaultup.core.upload import UploadCoordinator, UploadConfig, FixedSizeChunkingStrategy
from vaultup.core.utils import MIB


async def main():
    setup_logging(logging.DEBUG)
    
    # Proxy, timeouts and retries
    config = VaultClient.create_config(
        base_url="https://vault.example.com",
        proxy="http://proxy.example.com:8080",
        chunk_timeout=60,
        max_retries=5
    )
    
    async with VaultClient("jwt-token", config=config) as vault:
        
        # Drive a coordinator directly with a fixed chunk stride
        coordinator = UploadCoordinator(
            vault.api,
            vault.store,
            chunking_strategy=FixedSizeChunkingStrategy(4 * MIB)
        )
        coordinator.on('upload_finished', lambda e: print(f"Finalized: {e['job_id']}"))
        
        result = await coordinator.upload(UploadConfig(file_path="dataset.parquet"))
        print(f"{result.session.uploaded_chunks}/{result.session.total_chunks} chunks")


if __name__ == "__main__":
    asyncio.run(main())
