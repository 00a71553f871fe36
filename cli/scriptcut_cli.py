"""
SCRIPTCUT CLI - Command-line interface for the script → image → video pipeline.

서브커맨드:
- create   : 최종 스크립트로 프로젝트 생성
- narrate  : 내레이션 생성 (audioDuration 기록)
- segment  : 타임드 세그먼트 생성
- sample   : 스타일 샘플 이미지
- approve  : 스타일 승인
- images   : 전체 이미지 일괄 생성
- video    : 슬롯 비디오 생성 (완료까지 대기)
- show     : 프로젝트 / 슬롯 상태 출력
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Dict, Any

from dotenv import load_dotenv

from pipeline import ScriptcutPipeline
from schemas import Project
from utils.errors import MissingCredentialsError, ScriptcutError


def print_banner():
    """Print SCRIPTCUT banner."""
    banner = """
=====================================================================
                        S C R I P T C U T
          Story → Narration → Segments → Images → Videos
=====================================================================
"""
    print(banner)


def print_project(project: Project):
    """Print project summary."""
    print("\n" + "="*60)
    print(f"Project {project.id}")
    print("="*60)
    print(f"  Script: {project.final_script[:60]}...")
    print(f"  Audio: {project.tts_audio_url or '-'} ({project.audio_duration or 0:.2f}s)")
    print(f"  Style: {project.style_prompt or '(not approved)'}")
    print(f"  Aspect Ratio: {project.aspect_ratio or '-'}")
    print(f"  Slots: {len(project.slots)}")
    for slot in project.ordered_slots():
        image = "IMG" if slot.image_url else "---"
        video = slot.video_status.value if slot.video_status else "-"
        print(f"   [{slot.index:02d}] {slot.timestamp:>8} {image} {video:<10} {slot.text_segment[:40]}")
    print("="*60 + "\n")


def print_progress(step: str, progress: int, message: str, data: Dict[str, Any]):
    print(f"  [{progress:3d}%] {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scriptcut", description="SCRIPTCUT pipeline CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="Create a project from a final script")
    p.add_argument("script_file", help="Path to the final script text file")

    p = sub.add_parser("narrate", help="Generate narration audio")
    p.add_argument("project_id")
    p.add_argument("--voice", required=True, help="ElevenLabs voice ID")

    p = sub.add_parser("segment", help="Split the script into timed segments")
    p.add_argument("project_id")
    p.add_argument("--duration", type=float, help="Override audio duration (seconds)")

    p = sub.add_parser("sample", help="Generate a style sample image")
    p.add_argument("project_id")
    p.add_argument("--style", required=True)
    p.add_argument("--ratio", default="16:9")

    p = sub.add_parser("approve", help="Approve the sampled style")
    p.add_argument("project_id")
    p.add_argument("--style", required=True)
    p.add_argument("--ratio", default="16:9")

    p = sub.add_parser("images", help="Generate images for every slot")
    p.add_argument("project_id")
    p.add_argument("--keep-prompts", action="store_true", help="Reuse existing image prompts")

    p = sub.add_parser("video", help="Animate one slot image and wait for the result")
    p.add_argument("slot_id")
    p.add_argument("--prompt")

    p = sub.add_parser("show", help="Show project state")
    p.add_argument("project_id")

    return parser


async def run_command(pipeline: ScriptcutPipeline, args: argparse.Namespace):
    try:
        if args.command == "create":
            script = Path(args.script_file).read_text(encoding="utf-8")
            print_project(await pipeline.create_project(script))

        elif args.command == "narrate":
            print_project(await pipeline.narrate(args.project_id, args.voice))

        elif args.command == "segment":
            print_project(await pipeline.segment(args.project_id, audio_duration=args.duration))

        elif args.command == "sample":
            url = await pipeline.generate_sample(args.project_id, args.style, args.ratio)
            print(f"[OK] Style sample: {url}")

        elif args.command == "approve":
            print_project(await pipeline.approve_style(args.project_id, args.style, args.ratio))

        elif args.command == "images":
            result = await pipeline.generate_all_images(
                args.project_id,
                refresh_prompts=not args.keep_prompts,
                progress_callback=print_progress,
            )
            print(f"\n[DONE] {result.success_count}/{result.total} images generated")
            for failure in result.failures:
                print(f"  [FAILED] slot {failure.index}: {failure.error}")

        elif args.command == "video":
            slot = await pipeline.start_video(args.slot_id, args.prompt)
            print(f"[OK] Prediction {slot.video_job_id} started. Waiting...")
            slot = await pipeline.wait_for_video(args.slot_id)
            print(f"[DONE] Slot {slot.index}: {slot.video_status.value if slot.video_status else '-'} {slot.video_url or ''}")

        elif args.command == "show":
            print_project(await pipeline.get_project(args.project_id))
    finally:
        await pipeline.close()


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    print_banner()
    load_dotenv()

    try:
        pipeline = ScriptcutPipeline.from_env()
    except MissingCredentialsError as e:
        print(f"\n[ERROR] {e}")
        print("        Set your API keys in .env file or environment variables.\n")
        sys.exit(1)

    try:
        asyncio.run(run_command(pipeline, args))
    except KeyboardInterrupt:
        print("\n\n[INTERRUPTED] Interrupted by user.")
        sys.exit(1)
    except ScriptcutError as e:
        print(f"\n[ERROR] {e.message}")
        if e.details:
            print(f"        {e.details}")
        sys.exit(1)


if __name__ == "__main__":
    main()
