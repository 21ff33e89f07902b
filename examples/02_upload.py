"""
Chunked upload options
"""
import asyncio
from vaultup import VaultClient, FinalizePolicy, UploadSessionError, UploadCancelledError
from vaultup.core.utils import MIB, format_speed, format_eta


async def main():
    async with VaultClient("jwt-token") as vault:
        
        # Custom chunk size and concurrency
        result = await vault.upload_chunked(
            "backup.tar",
            chunk_size=8 * MIB,
            max_concurrent_chunks=5
        )
        print(f"Job: {result.job_id}")
        
        # Finalize even if some chunks gave up after 3 attempts
        try:
            result = await vault.upload_chunked(
                "flaky_network.iso",
                finalize_policy=FinalizePolicy.BEST_EFFORT,
                track_status=False
            )
            print(f"Failed chunks: {result.session.failed_indices}")
        except UploadSessionError as e:
            print(f"Upload failed during {e.stage}: {e.message}")
        
        # Show speed and remaining time while uploading
        def on_change(progress):
            session = vault.session
            if progress and session and not session.is_terminal:
                print(
                    f"{session.progress_percent}% "
                    f"{format_speed(session.average_speed)} "
                    f"{format_eta(session.eta_seconds)} left"
                )
        
        vault.on('change', on_change)
        
        # Cancel after ten seconds
        task = asyncio.ensure_future(vault.upload_chunked("huge.bin"))
        await asyncio.sleep(10)
        vault.cancel()
        try:
            await task
        except UploadCancelledError:
            print(f"Cancelled, session is {vault.session.status.value}")


if __name__ == "__main__":
    asyncio.run(main())
